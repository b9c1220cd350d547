"""adpulse — Google Ads performance rollups, search-term trees and insights."""

__version__ = "0.3.0"
