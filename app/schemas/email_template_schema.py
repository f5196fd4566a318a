from pydantic import BaseModel, ConfigDict, EmailStr
from sqlmodel import Field, SQLModel

from app.models.enums.email_template_type import EmailTemplateType


class EmailTemplateBase(SQLModel):
    model_config = ConfigDict(extra="forbid")
    template_type: EmailTemplateType = Field(unique=True, index=True)
    from_email: str = Field(max_length=255)
    subject: str = Field(max_length=500)
    body: str


class EmailTemplateGet(EmailTemplateBase):
    id: int
    # placeholders the template can use, e.g. "item_title" for {{item_title}}
    variables: list[str]


class EmailTemplateUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    from_email: EmailStr | None = None
    subject: str | None = Field(default=None, max_length=500)
    body: str | None = None
