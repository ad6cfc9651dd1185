"""Event panel constants."""

# Discord component limits
SELECT_MAX_OPTIONS = 25
OPTION_TEXT_LIMIT = 100
VIEW_TIMEOUT = 300

# Modal inputs
DATE_PLACEHOLDER = "2025-01-31 21:00（空欄で未定）"
SCENARIO_MAX_LENGTH = 100
SYSTEM_MAX_LENGTH = 100
GM_MAX_LENGTH = 100

# Replies
PANEL_MESSAGE = "📋 **予定パネル**"
NOT_READY = "⏳ 起動処理中です。しばらくしてからお試しください。"
GUILD_ONLY = "このコマンドはサーバー内でのみ使えます。"
GENERIC_FAILURE = "⚠️ 処理に失敗しました。"
NO_EVENTS = "（予定はありません）"
NO_EDITABLE = "（編集できる予定がありません）"
NO_REMOVABLE = "（削除できる予定がありません）"
NO_JOINABLE = "（参加できる予定がありません）"
NO_JOINED = "（参加中の予定はありません）"
