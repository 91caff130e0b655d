from pydantic import BaseModel, ConfigDict


class Entity(BaseModel):
    """Mutable domain object with identity.

    Assignments are re-validated so invariants declared on fields hold after
    every mutation.
    """

    model_config = ConfigDict(validate_assignment=True)
