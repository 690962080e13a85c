"""Outfit Studio：服飾照片 AI 生成服務。"""
