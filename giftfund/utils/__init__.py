from giftfund.utils.formatting import format_tx_hash, format_date, format_amount

__all__ = ['format_tx_hash', 'format_date', 'format_amount']
