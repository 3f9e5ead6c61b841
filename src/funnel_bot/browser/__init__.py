from .interactor import PageInteractor
from .launcher import BrowserManager, navigate_with_retry
from .observer import ScreenObserver, build_fingerprint, extract_prices, page_fingerprint
from .popups import PopupCloser
from .strategies import ChainResult, Strategy, StrategyStatus, run_strategies

__all__ = [
    "BrowserManager",
    "ChainResult",
    "PageInteractor",
    "PopupCloser",
    "ScreenObserver",
    "Strategy",
    "StrategyStatus",
    "build_fingerprint",
    "extract_prices",
    "navigate_with_retry",
    "page_fingerprint",
    "run_strategies",
]
