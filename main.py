import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from database import get_store
from schemas import ErrorKind, OrderDetails, ProductId, ProductIn, Result
from shop import StoreState

ERROR_DETAIL = {
    ErrorKind.NOT_FOUND: "Cart item not found",
}

ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTH: 400,
    ErrorKind.EMPTY_CART: 400,
    ErrorKind.AUTH_REQUIRED: 401,
    ErrorKind.NOT_FOUND: 404,
}


# Utilities

def get_state(request: Request) -> StoreState:
    return request.app.state.shop


def respond(result: Result) -> Dict[str, Any]:
    if not result.success:
        status = ERROR_STATUS.get(result.error, 400)
        detail = result.message or ERROR_DETAIL.get(result.error, "Request failed")
        raise HTTPException(status_code=status, detail=detail)
    return result.model_dump(mode="json", exclude_none=True)


# Request models
class RegisterInput(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""


class LoginInput(BaseModel):
    identifier: str = ""
    password: str = ""


class UpdateCartItem(BaseModel):
    product_id: ProductId
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: int


def create_app(state: Optional[StoreState] = None) -> FastAPI:
    app = FastAPI(title="Fashion Shop")
    app.state.shop = state if state is not None else StoreState(get_store())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def read_root():
        return {"message": "Fashion Shop API"}

    # Auth
    @app.post("/auth/register")
    def register(payload: RegisterInput, shop: StoreState = Depends(get_state)):
        return respond(shop.register(payload.name, payload.email, payload.password, payload.confirm_password))

    @app.post("/auth/login")
    def login(payload: LoginInput, shop: StoreState = Depends(get_state)):
        return respond(shop.login(payload.identifier, payload.password))

    @app.post("/auth/logout")
    def logout(shop: StoreState = Depends(get_state)):
        return respond(shop.logout())

    @app.get("/auth/me")
    def me(shop: StoreState = Depends(get_state)):
        if shop.current_user is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return shop.current_user.public()

    # Cart
    @app.get("/cart")
    def get_cart(shop: StoreState = Depends(get_state)):
        return {
            "items": [item.model_dump() for item in shop.cart],
            "total": shop.get_cart_total(),
            "count": shop.get_cart_count(),
        }

    @app.post("/cart")
    def add_to_cart(product: ProductIn, shop: StoreState = Depends(get_state)):
        return respond(shop.add_to_cart(product))

    @app.patch("/cart")
    def update_cart(item: UpdateCartItem, shop: StoreState = Depends(get_state)):
        return respond(shop.update_quantity(item.product_id, item.size, item.color, item.quantity))

    @app.delete("/cart/item")
    def remove_cart_item(
        product_id: str,
        size: Optional[str] = None,
        color: Optional[str] = None,
        shop: StoreState = Depends(get_state),
    ):
        return respond(shop.remove_from_cart(product_id, size, color))

    @app.delete("/cart")
    def clear_cart(shop: StoreState = Depends(get_state)):
        return respond(shop.clear_cart())

    # Favorites
    @app.get("/favorites")
    def list_favorites(shop: StoreState = Depends(get_state)) -> List[str]:
        return shop.favorites

    @app.post("/favorites/{product_id}")
    def toggle_favorite(product_id: str, shop: StoreState = Depends(get_state)):
        return respond(shop.toggle_favorite(product_id))

    # Orders
    @app.post("/orders")
    def create_order(details: OrderDetails, shop: StoreState = Depends(get_state)):
        return respond(shop.create_order(details))

    @app.get("/orders")
    def list_orders(shop: StoreState = Depends(get_state)):
        return [order.model_dump(mode="json") for order in shop.get_user_orders()]

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
