from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PipelineOptions(BaseModel):
    """Options read and adjusted by the phases of a save or delete.

    Listeners receive the same object; keys a phase does not know about are
    kept as extras and handed on to association saves and cascades.
    """

    model_config = ConfigDict(extra="allow", validate_assignment=True, populate_by_name=True)

    atomic: bool = True

    @classmethod
    def coerce(cls, options=None, **kwargs):
        if isinstance(options, cls) and not kwargs:
            return options
        if isinstance(options, PipelineOptions):
            options = options.to_dict()
        data = dict(options or {})
        data.update(kwargs)
        return cls(**data)

    def to_dict(self, exclude=None):
        data = self.model_dump(by_alias=True)
        for key in exclude or ():
            data.pop(key, None)
        return data


class SaveOptions(PipelineOptions):
    # "validate" would shadow a BaseModel method
    validate_: Union[bool, str] = Field(True, alias="validate")
    associated: Optional[Union[bool, List[str], Dict[str, Any]]] = True

    @field_validator("associated", mode="before")
    @classmethod
    def _associated_names(cls, value):
        if isinstance(value, (tuple, set)):
            return list(value)
        return value

    @property
    def validation(self):
        return self.validate_


class DeleteOptions(PipelineOptions):
    pass
