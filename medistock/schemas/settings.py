from pydantic import BaseModel, field_validator


class EmailTemplate(BaseModel):
    template: str

    @field_validator("template")
    @classmethod
    def has_placeholder(cls, v):
        if "{{{itemsListHtml}}}" not in v:
            raise ValueError("Template must contain the {{{itemsListHtml}}} placeholder.")
        return v


class EmailTemplateResponse(EmailTemplate):
    is_default: bool = False
