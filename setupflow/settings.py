import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    API_KEY: str = os.getenv("API_KEY", "")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    # Provider (Stripe) client surface
    STRIPE_PUBLISHABLE_KEY: str = os.getenv("STRIPE_PUBLISHABLE_KEY", "")
    STRIPE_API_BASE: str = os.getenv("STRIPE_API_BASE", "https://api.stripe.com").rstrip("/")
    STRIPE_API_VERSION: str = os.getenv("STRIPE_API_VERSION", "2024-06-20")
    PROVIDER_TIMEOUT_SEC: float = float(os.getenv("PROVIDER_TIMEOUT_SEC", "10.0"))

    # Return target handed to the provider for redirect-based authentication
    PUBLIC_ORIGIN: str = os.getenv("PUBLIC_ORIGIN", "http://localhost:8000").rstrip("/")
    SETUP_RETURN_PATH: str = os.getenv("SETUP_RETURN_PATH", "/setup-complete")

    # Embedded element options (layout + ordering of payment method tabs)
    ELEMENT_LAYOUT: str = os.getenv("ELEMENT_LAYOUT", "tabs")
    PAYMENT_METHOD_ORDER: str = os.getenv("PAYMENT_METHOD_ORDER", "card")

    # Element appearance, passed through to the client unchanged
    APPEARANCE_THEME: str = os.getenv("APPEARANCE_THEME", "stripe")
    APPEARANCE_COLOR_PRIMARY: str = os.getenv("APPEARANCE_COLOR_PRIMARY", "#3B82F6")
    APPEARANCE_COLOR_BACKGROUND: str = os.getenv("APPEARANCE_COLOR_BACKGROUND", "#ffffff")
    APPEARANCE_COLOR_TEXT: str = os.getenv("APPEARANCE_COLOR_TEXT", "#1f2937")
    APPEARANCE_COLOR_DANGER: str = os.getenv("APPEARANCE_COLOR_DANGER", "#ef4444")
    APPEARANCE_FONT_FAMILY: str = os.getenv("APPEARANCE_FONT_FAMILY", "system-ui, sans-serif")
    APPEARANCE_SPACING_UNIT: str = os.getenv("APPEARANCE_SPACING_UNIT", "4px")
    APPEARANCE_BORDER_RADIUS: str = os.getenv("APPEARANCE_BORDER_RADIUS", "8px")

    # In-process workflow registry (lost on restart)
    WORKFLOW_MAX_ACTIVE: int = int(os.getenv("WORKFLOW_MAX_ACTIVE", "1000"))

    ENABLE_SECRET_REDACTION: bool = os.getenv("ENABLE_SECRET_REDACTION", "true").lower() == "true"

    @property
    def return_url(self) -> str:
        return f"{self.PUBLIC_ORIGIN}{self.SETUP_RETURN_PATH}"

    def payment_method_order(self) -> list:
        return [x.strip() for x in self.PAYMENT_METHOD_ORDER.split(",") if x.strip()]

    def element_appearance(self) -> dict:
        return {
            "theme": self.APPEARANCE_THEME,
            "variables": {
                "colorPrimary": self.APPEARANCE_COLOR_PRIMARY,
                "colorBackground": self.APPEARANCE_COLOR_BACKGROUND,
                "colorText": self.APPEARANCE_COLOR_TEXT,
                "colorDanger": self.APPEARANCE_COLOR_DANGER,
                "fontFamily": self.APPEARANCE_FONT_FAMILY,
                "spacingUnit": self.APPEARANCE_SPACING_UNIT,
                "borderRadius": self.APPEARANCE_BORDER_RADIUS,
            },
        }

settings = Settings()
