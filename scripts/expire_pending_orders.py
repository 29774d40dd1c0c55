import logging

from src.application.order_service import OrderLifecycleService


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    expired = OrderLifecycleService().expire_stale_orders().unwrap()
    print(f"Expired {expired} unpaid orders.")


if __name__ == "__main__":
    main()
