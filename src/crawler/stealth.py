"""Browser fingerprint randomization and stealth Chrome driver factories."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.chrome.service import Service as ChromeService

from src.config import (
    CHROME_BIN,
    CHROMEDRIVER_PATH,
    SELENIUM_PROXY,
    USE_UNDETECTED_CHROME,
)

logger = logging.getLogger(__name__)

DESKTOP_USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Safari/605.1.15",
)

MOBILE_USER_AGENTS = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Mobile Safari/537.36",
)

ACCEPT_LANGUAGES = (
    "en-US,en;q=0.9",
    "en-US,en;q=0.9,es;q=0.8",
    "en-US,en;q=0.9,fr;q=0.8,de;q=0.7",
    "en-US,en;q=0.9,it;q=0.8",
    "en-GB,en;q=0.9",
)

BASE_VIEWPORT = (1920, 1080)
VIEWPORT_JITTER = 0.10

# Overrides for the properties headless-detection probes read. Injected on
# every new document so they survive navigations.
STEALTH_SCRIPT_TEMPLATE = """
Object.defineProperty(navigator, 'webdriver', {get: () => undefined});
Object.defineProperty(navigator, 'plugins', {get: () => [1, 2, 3, 4, 5]});
Object.defineProperty(navigator, 'languages', {get: () => %(languages)s});
if (window.navigator.permissions && window.navigator.permissions.query) {
    const originalQuery = window.navigator.permissions.query;
    window.navigator.permissions.query = (parameters) => (
        parameters.name === 'notifications' ?
            Promise.resolve({ state: Notification.permission }) :
            originalQuery(parameters)
    );
}
"""


@dataclass(frozen=True)
class Fingerprint:
    user_agent: str
    accept_language: str
    width: int
    height: int
    mobile: bool = False

    @property
    def languages(self) -> List[str]:
        """Language tags of ``accept_language`` without their q-values."""
        tags = []
        for part in self.accept_language.split(","):
            tag = part.split(";")[0].strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @property
    def stealth_script(self) -> str:
        quoted = ", ".join(f"'{tag}'" for tag in self.languages)
        return STEALTH_SCRIPT_TEMPLATE % {"languages": f"[{quoted}]"}


def random_viewport(rng: Optional[random.Random] = None) -> tuple[int, int]:
    """Viewport within ±10% of 1920x1080."""
    rng = rng or random
    width, height = BASE_VIEWPORT
    return (
        rng.randint(int(width * (1 - VIEWPORT_JITTER)), int(width * (1 + VIEWPORT_JITTER))),
        rng.randint(
            int(height * (1 - VIEWPORT_JITTER)), int(height * (1 + VIEWPORT_JITTER))
        ),
    )


def choose_fingerprint(
    rng: Optional[random.Random] = None,
    *,
    mobile: bool = False,
    user_agents: Sequence[str] = (),
) -> Fingerprint:
    rng = rng or random
    width, height = random_viewport(rng)
    agents = tuple(user_agents) or (MOBILE_USER_AGENTS if mobile else DESKTOP_USER_AGENTS)
    return Fingerprint(
        user_agent=rng.choice(agents),
        accept_language=rng.choice(ACCEPT_LANGUAGES),
        width=width,
        height=height,
        mobile=mobile,
    )


def build_headers(fingerprint: Fingerprint, referer: Optional[str] = None) -> Dict[str, str]:
    """Realistic navigation headers for *fingerprint*."""
    headers = {
        "User-Agent": fingerprint.user_agent,
        "Accept": (
            "text/html,application/xhtml+xml,application/xml;q=0.9,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": fingerprint.accept_language,
        "Cache-Control": "max-age=0",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "cross-site" if referer else "none",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
        "DNT": "1",
    }
    if referer:
        headers["Referer"] = referer
    return headers


def _apply_common_arguments(options, fingerprint: Fingerprint) -> None:
    # "none": driver.get returns at once; the acquirer polls document state
    # for the wait condition of each navigation strategy.
    options.page_load_strategy = "none"
    options.add_argument("--headless=new")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-gpu")
    options.add_argument("--disable-blink-features=AutomationControlled")
    options.add_argument("--disable-features=TranslateUI")
    options.add_argument("--disable-background-timer-throttling")
    options.add_argument("--disable-backgrounding-occluded-windows")
    options.add_argument("--disable-renderer-backgrounding")
    options.add_argument("--no-first-run")
    options.add_argument("--mute-audio")
    options.add_argument(f"--window-size={fingerprint.width},{fingerprint.height}")
    options.add_argument(f"--user-agent={fingerprint.user_agent}")
    options.add_argument(f"--lang={fingerprint.languages[0] if fingerprint.languages else 'en-US'}")
    if SELENIUM_PROXY:
        options.add_argument(f"--proxy-server={SELENIUM_PROXY}")


def _create_undetected_driver(fingerprint: Fingerprint):
    """undetected-chromedriver instance with the fingerprint applied."""
    import undetected_chromedriver as uc

    options = uc.ChromeOptions()
    _apply_common_arguments(options, fingerprint)

    uc_kwargs = {
        "options": options,
        "version_main": None,
        "headless": False,  # --headless=new is passed as an argument
        "use_subprocess": False,
        "log_level": 3,
    }
    if CHROMEDRIVER_PATH:
        uc_kwargs["driver_executable_path"] = str(CHROMEDRIVER_PATH)
    if CHROME_BIN:
        uc_kwargs["browser_executable_path"] = str(CHROME_BIN)
    return uc.Chrome(**uc_kwargs)


def _create_stealth_driver(fingerprint: Fingerprint):
    """Plain Selenium Chrome with automation switches hidden."""
    chrome_options = ChromeOptions()
    _apply_common_arguments(chrome_options, fingerprint)
    chrome_options.add_experimental_option("excludeSwitches", ["enable-automation"])
    chrome_options.add_experimental_option("useAutomationExtension", False)
    chrome_options.add_experimental_option(
        "prefs",
        {
            "profile.default_content_setting_values": {
                "notifications": 2,
                "geolocation": 2,
                "media_stream": 2,
            }
        },
    )
    if CHROME_BIN:
        chrome_options.binary_location = str(CHROME_BIN)

    if CHROMEDRIVER_PATH:
        service = ChromeService(executable_path=str(CHROMEDRIVER_PATH))
        return webdriver.Chrome(service=service, options=chrome_options)
    return webdriver.Chrome(options=chrome_options)


def apply_stealth(driver, fingerprint: Fingerprint) -> None:
    """Spoof navigator properties and pin UA / Accept-Language via CDP."""
    from selenium_stealth import stealth

    stealth(
        driver,
        languages=fingerprint.languages or ["en-US", "en"],
        vendor="Google Inc.",
        platform="iPhone" if fingerprint.mobile else "Win32",
        webgl_vendor="Intel Inc.",
        renderer="Intel Iris OpenGL Engine",
        fix_hairline=True,
    )
    driver.execute_cdp_cmd(
        "Page.addScriptToEvaluateOnNewDocument",
        {"source": fingerprint.stealth_script},
    )
    driver.execute_cdp_cmd("Network.enable", {})
    driver.execute_cdp_cmd(
        "Network.setUserAgentOverride",
        {
            "userAgent": fingerprint.user_agent,
            "acceptLanguage": fingerprint.accept_language,
        },
    )


def set_request_headers(driver, fingerprint: Fingerprint, referer: Optional[str]) -> None:
    """Headers sent with every following request of the session."""
    headers = build_headers(fingerprint, referer)
    # The UA is set through the override; duplicating it confuses some CDNs.
    headers.pop("User-Agent", None)
    driver.execute_cdp_cmd("Network.setExtraHTTPHeaders", {"headers": headers})


def create_driver(
    fingerprint: Fingerprint,
    *,
    page_load_timeout: float = 30.0,
    use_undetected: bool = USE_UNDETECTED_CHROME,
):
    """Create a Chrome driver configured for *fingerprint*.

    Falls back to the plain Selenium driver when undetected-chromedriver
    cannot start. Errors from the fallback propagate.
    """
    driver = None
    if use_undetected:
        try:
            driver = _create_undetected_driver(fingerprint)
        except (WebDriverException, OSError, RuntimeError) as exc:
            logger.warning("Undetected driver failed, using stealth driver: %s", exc)
    if driver is None:
        driver = _create_stealth_driver(fingerprint)

    try:
        apply_stealth(driver, fingerprint)
        driver.set_page_load_timeout(page_load_timeout)
        client_config = getattr(driver.command_executor, "_client_config", None)
        if client_config is not None:
            client_config.timeout = max(30, int(page_load_timeout))
    except WebDriverException:
        driver.quit()
        raise
    return driver
