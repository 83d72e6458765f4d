from vending.utils.ids import collision_probability, generate_transaction_id
from vending.utils.operator import request_operator_topup

__all__ = [
    "collision_probability",
    "generate_transaction_id",
    "request_operator_topup",
]
