from enum import Enum


class PaymentMethod(str, Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    WECHAT = "wechat"
    ALIPAY = "alipay"
    RAZORPAY = "razorpay"
