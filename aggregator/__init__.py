"""
Aggregator Module
"""
from .fetch_orchestrator import FetchOrchestrator, chunk

__all__ = ["FetchOrchestrator", "chunk"]
