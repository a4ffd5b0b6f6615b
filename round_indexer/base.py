"""Strict pydantic base for every persisted record."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Model whose persisted keys are the camelCase form of its field names.

    ``chain_id`` in Python is ``chainId`` in the stored document. Either
    spelling is accepted when constructing a record.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
    )


class StrictBaseModel(CamelModel):
    """Immutable record that refuses coercion and unknown keys."""

    model_config = CamelModel.model_config | {
        "extra": "forbid",
        "frozen": True,
        "strict": True,
    }
