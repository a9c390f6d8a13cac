from typing import Any, Dict, Optional
from pydantic import BaseModel


class AdminRequest(BaseModel):
    action: Optional[str] = None
    provider_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    admin_password: Optional[str] = None
