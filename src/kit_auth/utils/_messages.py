"""User facing messages for failed auth callbacks.

Provider error text is forwarded as is, except for two well known cases
that get a friendlier, localized message.
"""

VERIFIER_ERROR_MARKERS = ("pkce_verifier", "otp", "verifier", "pkce", "expired")

# PostgREST rejected the JWT
JWT_REJECTED_CODE = "PGRST301"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "verifier_error": (
            "Your sign in link has expired. If you opened it in a different "
            "browser or device, start the sign in again from the browser you "
            "want to use."
        ),
        "auth_failed": "Authentication failed. Please try again.",
        "callback_failed": "An error occurred while processing authentication.",
        "unknown_error": "Unknown callback error",
    },
    "ja": {
        "verifier_error": (
            "認証セッションの有効期限が切れています。別のブラウザやデバイスで"
            "認証を試みた場合は、同じブラウザで最初から認証フローをやり直してください。"
        ),
        "auth_failed": "認証に失敗しました。もう一度お試しください。",
        "callback_failed": "認証処理中にエラーが発生しました",
        "unknown_error": "不明なエラーが発生しました",
    },
}

DEFAULT_LOCALE = "en"


def get_message(key: str, locale: str = DEFAULT_LOCALE) -> str:
    catalog = MESSAGES.get(locale) or MESSAGES[DEFAULT_LOCALE]

    return catalog.get(key) or MESSAGES[DEFAULT_LOCALE][key]


def is_verifier_error(error: str) -> bool:
    """Whether ``error`` hints at a flow finished in another browser.

    A missing or expired PKCE verifier almost always means the user
    requested the link in one browser and opened it in another.
    """
    error = error.lower()

    return any(marker in error for marker in VERIFIER_ERROR_MARKERS)


def get_auth_error_message(
    error: str, code: str | None = None, locale: str = DEFAULT_LOCALE
) -> str:
    if is_verifier_error(error):
        return get_message("verifier_error", locale)

    if code == JWT_REJECTED_CODE:
        return get_message("auth_failed", locale)

    return error or get_message("unknown_error", locale)


ERROR_CODE_MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "UNKNOWN_ERROR": "An unexpected error occurred while signing you in.",
        "OAUTH_ERROR": "The sign in provider reported an error.",
        "STATE_ERROR": "The sign in request is missing its security token.",
        "STATE_MISMATCH": "The sign in request could not be verified.",
        "CODE_ERROR": "The sign in request is missing its authorization code.",
        "SESSION_ERROR": "No session could be created for this sign in.",
        "CODE_VERIFIER_ERROR": MESSAGES["en"]["verifier_error"],
        "EXCHANGE_ERROR": "The authorization code could not be exchanged.",
        "REDIRECT_ERROR": "There is nowhere to continue to after signing in.",
        "INVALID_REDIRECT": "The page to continue to is not allowed.",
    },
    "ja": {
        "UNKNOWN_ERROR": "認証処理中に予期しないエラーが発生しました。",
        "OAUTH_ERROR": "認証プロバイダーでエラーが発生しました。",
        "STATE_ERROR": "認証リクエストにセキュリティトークンがありません。",
        "STATE_MISMATCH": "認証リクエストを検証できませんでした。",
        "CODE_ERROR": "認証リクエストに認可コードがありません。",
        "SESSION_ERROR": "セッションを作成できませんでした。",
        "CODE_VERIFIER_ERROR": MESSAGES["ja"]["verifier_error"],
        "EXCHANGE_ERROR": "認可コードを交換できませんでした。",
        "REDIRECT_ERROR": "認証後のリダイレクト先がありません。",
        "INVALID_REDIRECT": "許可されていないリダイレクト先です。",
    },
}


def get_error_code_message(error_code: str, locale: str = DEFAULT_LOCALE) -> str:
    catalog = ERROR_CODE_MESSAGES.get(locale) or ERROR_CODE_MESSAGES[DEFAULT_LOCALE]

    return catalog.get(error_code) or ERROR_CODE_MESSAGES[DEFAULT_LOCALE][error_code]
