"""
HTTP 層

只負責 request 解析與 response 組裝，業務邏輯全部在 core.RoomManager
"""
