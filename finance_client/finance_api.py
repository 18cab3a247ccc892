from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from .auth_client import AuthClient
from .errors import ApiError
from .executor import RequestSpec
from .models import Category, Summary, TokenPair, Transaction
from .session import SessionManager

M = TypeVar("M", bound=BaseModel)


def _one(model: Type[M], status: int, payload: Any) -> M:
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ApiError(status, f"Unexpected {model.__name__} payload: {e}") from e


def _many(model: Type[M], status: int, payload: Any) -> List[M]:
    try:
        return TypeAdapter(List[model]).validate_python(payload)
    except ValidationError as e:
        raise ApiError(status, f"Unexpected {model.__name__} list payload: {e}") from e


class FinanceClient:
    """What the screens call. Every authenticated call goes through the session manager."""

    def __init__(self, session: SessionManager, auth: AuthClient):
        self.session = session
        self.auth = auth

    async def _request(self, method: str, path: str, json: Optional[dict] = None, params: Optional[dict] = None):
        res = await self.session.execute(RequestSpec(method, path, json=json, params=params))
        return res.status, res.payload

    # AUTH
    async def login(self, username: str, password: str) -> TokenPair:
        tokens = await self.auth.login(username, password)
        await self.session.login(tokens.access, tokens.refresh)
        return tokens

    async def register(self, username: str, email: str, password: str, user_type: Literal["PF", "PJ"] = "PF") -> Dict[str, Any]:
        return await self.auth.register(username, email, password, user_type)

    async def logout(self) -> None:
        await self.session.logout()

    async def close(self) -> None:
        await self.session.store.close()

    async def get_user(self) -> Dict[str, Any]:
        _, body = await self._request("GET", "/users/me/")
        return body

    get_profile = get_user

    # TRANSACTIONS
    async def get_transactions(self) -> List[Transaction]: return _many(Transaction, *await self._request("GET", "/transactions/"))
    async def get_summary(self) -> Summary: return _one(Summary, *await self._request("GET", "/transactions/summary/"))

    async def create_transaction(
        self,
        amount: Union[Decimal, float, str],
        description: str,
        category: int,
        type: Literal["IN", "OUT"],
        payment_method: str,
        date: str,
    ) -> Transaction:
        payload = {
            "amount": str(amount),
            "description": description,
            "category": category,
            "type": type,
            "payment_method": payment_method,
            "date": date,
        }
        return _one(Transaction, *await self._request("POST", "/transactions/", json=payload))

    async def update_transaction(self, tid: int, **fields: Any) -> Transaction:
        if isinstance(fields.get("amount"), (Decimal, float)):
            fields["amount"] = str(fields["amount"])
        return _one(Transaction, *await self._request("PUT", f"/transactions/{tid}/", json=fields))

    async def delete_transaction(self, tid: int) -> None: await self._request("DELETE", f"/transactions/{tid}/")

    # CATEGORIES
    async def get_categories(self) -> List[Category]: return _many(Category, *await self._request("GET", "/categories/"))
    async def create_category(self, name: str) -> Category: return _one(Category, *await self._request("POST", "/categories/", json={"name": name}))
    async def update_category(self, cid: int, name: str) -> Category: return _one(Category, *await self._request("PUT", f"/categories/{cid}/", json={"name": name}))
    async def delete_category(self, cid: int) -> None: await self._request("DELETE", f"/categories/{cid}/")
