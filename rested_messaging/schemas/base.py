from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator
from pydantic.alias_generators import to_camel


RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class FamilyContextFields(ApiModel):

    original_child_id: Optional[str] = None
    siblings: Optional[List[str]] = None

    @field_validator("siblings", mode="before")
    @classmethod
    def split_siblings(cls, value: Any) -> Any:
        # query strings carry siblings as "a,b,c"
        if isinstance(value, str):
            return [s.strip() for s in value.split(",") if s.strip()]
        return value
