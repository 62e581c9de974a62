"""
Claims Desk - API Request Bodies
"""

from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class SendForSignatureRequest(BaseModel):
    """
    Body of POST /api/signatures/send.

    Any extra case fields (insurer, vehicle, accident details...) are kept
    and fed to the field mapper alongside ``formData``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    case_number: str = Field(alias="caseNumber", min_length=1)
    document_type: str = Field(alias="documentType")
    method: Literal["email", "sms"] = "email"
    client_name: Optional[str] = Field(default=None, alias="clientName")
    client_email: Optional[str] = Field(default=None, alias="clientEmail")
    client_phone: Optional[str] = Field(default=None, alias="clientPhone")
    form_data: Dict[str, Any] = Field(default_factory=dict, alias="formData")

    def case_fields(self) -> Dict[str, Any]:
        """All case fields in the camelCase shape the field mapper reads."""
        fields: Dict[str, Any] = dict(self.model_extra or {})
        fields.update(self.form_data)
        fields["caseNumber"] = self.case_number
        if self.client_name:
            fields["clientName"] = self.client_name
        if self.client_email:
            fields["clientEmail"] = self.client_email
        if self.client_phone:
            fields["clientPhone"] = self.client_phone
        return fields


class TokenRequest(BaseModel):
    """Body carrying a signature token string."""

    token: str = ""
