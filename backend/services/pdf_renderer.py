"""
Efficience Analytics - Rendu PDF des rapports

Rendu via Chromium headless (playwright): A4, fonds imprimés, marges 10/10/12/12 mm.
En cas d'échec du rendu (navigateur absent, timeout, rendu désactivé),
le HTML est retourné tel quel avec le type text/html.
"""

import logging
from dataclasses import dataclass

from config import PDF_RENDERING_ENABLED

logger = logging.getLogger("pdf_renderer")

PDF_MAGIC = b"%PDF"
PDF_MARGINS = {"top": "10mm", "bottom": "10mm", "left": "12mm", "right": "12mm"}


@dataclass
class RenderedDocument:
    content: bytes
    content_type: str
    extension: str

    @property
    def is_pdf(self) -> bool:
        return self.content_type == "application/pdf"


def is_pdf(content: bytes) -> bool:
    return content[:4] == PDF_MAGIC


def html_document(html: str) -> RenderedDocument:
    return RenderedDocument(html.encode("utf-8"), "text/html; charset=utf-8", "html")


async def html_to_pdf(html: str) -> bytes:
    """Convertit un document HTML en PDF (lève en cas d'échec)."""
    # Import local: playwright n'est chargé que si le rendu est activé
    from playwright.async_api import async_playwright

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=True, args=["--no-sandbox"])
        try:
            page = await browser.new_page()
            await page.set_content(html, wait_until="networkidle")
            return await page.pdf(format="A4", print_background=True, margin=PDF_MARGINS)
        finally:
            await browser.close()


async def render_report_document(html: str) -> RenderedDocument:
    """PDF si possible, sinon repli HTML."""
    if not PDF_RENDERING_ENABLED:
        return html_document(html)

    try:
        content = await html_to_pdf(html)
    except Exception as e:
        logger.warning(f"[PDF_FALLBACK] Rendu PDF impossible, repli HTML: {str(e)}")
        return html_document(html)

    if not is_pdf(content):
        logger.warning("[PDF_FALLBACK] Sortie du renderer invalide, repli HTML")
        return html_document(html)

    return RenderedDocument(content, "application/pdf", "pdf")
