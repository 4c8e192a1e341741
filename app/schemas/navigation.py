from pydantic import BaseModel
from typing import List


class NavItem(BaseModel):
    label: str
    path: str
    icon: str
    active: bool = False


class VisibleNav(BaseModel):
    nav_items: List[NavItem]
    show_chat_affordance: bool
