from sqlalchemy import Column, Text
from sqlmodel import Field

from app.schemas.email_template_schema import EmailTemplateBase


class EmailTemplate(EmailTemplateBase, table=True):
    __tablename__ = "email_templates"

    id: int = Field(default=None, primary_key=True)
    body: str = Field(sa_column=Column(Text, nullable=False))
