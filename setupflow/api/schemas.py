from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field

ReferenceField = Literal["id", "confirmationSecret"]

class FieldUpdate(BaseModel):
    value: str = ""

class ElementUpdate(BaseModel):
    # Tokenized by the client-side element; raw card data never comes here
    paymentMethod: str
    paymentMethodType: str = "card"

class FieldErrorOut(BaseModel):
    code: str
    message: str

class SuccessView(BaseModel):
    title: str
    detail: str
    action: str

class WorkflowView(BaseModel):
    workflowId: str
    stage: Literal["collecting_reference", "collecting_payment_details"]
    # Screen A
    fields: Optional[Dict[str, str]] = None
    errors: Dict[str, FieldErrorOut] = Field(default_factory=dict)
    # Screen B
    setupId: Optional[str] = None
    state: Optional[str] = None
    submitDisabled: Optional[bool] = None
    busy: Optional[bool] = None
    error: Optional[str] = None
    redirectUrl: Optional[str] = None
    success: Optional[SuccessView] = None

class ClientConfig(BaseModel):
    publishableKey: str
    returnUrl: str
    elementOptions: Dict[str, Any]
    appearance: Dict[str, Any]

class SetupCompleteView(BaseModel):
    setupId: str
    status: str
    succeeded: bool
    message: Optional[str] = None

