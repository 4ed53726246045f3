"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- NamingService：房間代碼與名稱的生成/驗證
- LeaderboardService：排行榜計算
"""
