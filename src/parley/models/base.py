from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ParleyModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python.

    Numeric ids are coerced to strings so ``7`` and ``"7"`` dedupe alike.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
