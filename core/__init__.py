"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理所有狀態轉換
- Manager：管理 Room 的生命週期
- Store：房間紀錄的讀寫與版本號
- Concurrency：樂觀鎖與有限重試
"""
