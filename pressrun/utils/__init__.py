from .timezone_utils import TimezoneUtils

__all__ = ['TimezoneUtils']
