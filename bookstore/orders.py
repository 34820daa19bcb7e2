import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List

from . import errors, models, schemas
from .auth import Principal
from .repositories import BookRepository, OrderRepository

logger = logging.getLogger(__name__)


def round_amount(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class OrderService:
    def __init__(self, orders: OrderRepository, books: BookRepository):
        self.orders = orders
        self.books = books

    def place_order(self, principal: Principal, data: schemas.OrderCreate) -> models.Order:
        """Create an order from the requested items, reserving stock.

        Unit prices are copied from the books at purchase time. Stock is
        decremented in the same commit as the order rows.
        """
        quantities = {}
        for item in data.items:
            quantities[item.book_id] = quantities.get(item.book_id, 0) + item.quantity

        books = self.books.lock_many(quantities)
        for book_id, quantity in quantities.items():
            book = books.get(book_id)
            if book is None:
                raise errors.BookNotFound(f"Book with ID {book_id} not found")
            if book.stock < quantity:
                raise errors.InsufficientStock(
                    f"Only {book.stock} copies of {book.title!r} are in stock",
                    details={"bookId": book_id, "requested": quantity, "available": book.stock},
                )

        order = models.Order(user_id=principal.id, status="pending")
        total = Decimal("0")
        for book_id, quantity in quantities.items():
            book = books[book_id]
            price = Decimal(book.price)
            book.stock -= quantity
            order.items.append(models.OrderItem(book_id=book_id, quantity=quantity, price=price))
            total += price * quantity

        order.total_price = round_amount(total)
        self.orders.add(order)
        logger.info("Order %s placed by user %s (total %s)", order.id, principal.id, order.total_price)
        return self.orders.get_with_items(order.id)

    def list_orders(self, principal: Principal) -> List[models.Order]:
        return self.orders.for_user(None if principal.is_admin else principal.id)

    def get_order(self, order_id: int, principal: Principal) -> models.Order:
        order = self.orders.get_with_items(order_id)
        if order is None:
            raise errors.OrderNotFound(f"Order with ID {order_id} not found")
        if order.user_id != principal.id and not principal.is_admin:
            raise errors.Forbidden("You can only view your own orders")
        return order

    def update_status(self, order_id: int, status: str) -> models.Order:
        order = self.orders.get_with_items(order_id)
        if order is None:
            raise errors.OrderNotFound(f"Order with ID {order_id} not found")
        order.status = status
        self.orders.save(order)
        logger.info("Order %s moved to %s", order_id, status)
        return order
