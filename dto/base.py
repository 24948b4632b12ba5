from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for DTOs that cross the LLM / persistence boundary.

    Attributes are snake_case in Python; JSON keys are camelCase
    (``sheetName``, ``pageNumber`` …).  Either form is accepted on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
