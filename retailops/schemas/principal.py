"""Principal Context Schema: the already-authenticated principal handed in by the session layer.

Invariants:
    - email is stripped, lower-cased and non-empty
    - role is upper-cased and parsed into Role; unrecognized roles become UNKNOWN
    - store lists are de-duplicated when converted to a Principal

Design Decisions:
    - Accepts the legacy profile keys (assignedStore, stores as {id: true}) so
      a stored user profile can be passed through unchanged
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from retailops.core.domain_types import Role, parse_role
from retailops.core.records import Principal


class PrincipalContext(BaseModel):
    """Principal payload validated at the library boundary."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    email: str = Field(min_length=1, validation_alias=AliasChoices("email", "id"))
    role: Role = Role.UNKNOWN
    home_store: str | None = Field(
        None, validation_alias=AliasChoices("homeStore", "home_store", "assignedStore"),
    )
    managed_stores: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("managedStores", "managed_stores", "stores"),
    )

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("role", mode="before")
    @classmethod
    def parse_role_name(cls, v: object) -> Role:
        return parse_role(v)

    @field_validator("home_store", mode="before")
    @classmethod
    def blank_store_is_none(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("managed_stores", mode="before")
    @classmethod
    def legacy_store_map(cls, v: object) -> object:
        """{storeId: true, otherId: false} → ["storeId"]."""
        if v is None:
            return []
        if isinstance(v, dict):
            return [k for k, enabled in v.items() if enabled is True]
        return v

    def to_principal(self) -> Principal:
        return Principal(
            id=self.email,
            role=self.role,
            home_store=self.home_store,
            managed_stores=frozenset(s.strip() for s in self.managed_stores if s.strip()),
        )
