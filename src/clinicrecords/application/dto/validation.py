"""Input model parsing with domain error translation."""

from typing import Any, Dict, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ...domain.errors import ValidationFailedError

M = TypeVar("M", bound=BaseModel)


def parse_input(model_cls: Type[M], data: Union[M, Dict[str, Any]]) -> M:
    """Coerce a dict (or an existing model) into ``model_cls``.

    Raises ValidationFailedError carrying pydantic's error list so nothing is
    written for malformed input.
    """
    if isinstance(data, model_cls):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise ValidationFailedError(
            f"Invalid {model_cls.__name__}",
            {"errors": e.errors(include_url=False, include_context=False)},
        ) from e
