"""Inquiry Router configuration package"""
