"""Inquiry Pipeline Agent Module"""
from .graph import InquiryPipeline, InquiryState

__all__ = ["InquiryPipeline", "InquiryState"]
