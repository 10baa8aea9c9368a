from .money import ZERO_MONEY, nets_to_zero, quantize_money, sum_money

__all__ = ["ZERO_MONEY", "nets_to_zero", "quantize_money", "sum_money"]
