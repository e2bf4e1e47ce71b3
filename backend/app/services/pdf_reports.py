"""
PDF Reports
A4 landscape documents built with fpdf2, mirroring the PowerPoint decks:
cover, store details, photos with measurements, before/after pairs.
"""

from io import BytesIO
from typing import Iterable, List, Optional, Sequence, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from app.models.store import Store
from app.services.report_common import (
    BORDER_DARK,
    LIGHT_BG,
    PAGE_BG,
    PRIMARY,
    REPORT_RECCE,
    ImageLoader,
    element_lines,
    fit_box,
    hex_to_rgb,
    installation_details,
    installation_pairs,
    measurement_caption,
    recce_details,
)


PDF_MEDIA_TYPE = "application/pdf"

FONT = "helvetica"


def latin1(text) -> str:
    """Core PDF fonts only cover latin-1."""
    return str(text).encode("latin-1", "replace").decode("latin-1")


class StoreReportPDF(FPDF):
    """FPDF with the report header band and page footer."""

    def __init__(self, loader: ImageLoader, title: str):
        super().__init__(orientation="L", unit="mm", format="A4")
        self.loader = loader
        self.report_title = title
        self.set_auto_page_break(auto=True, margin=15)
        self.set_margins(12, 20, 12)

    def header(self):
        self.set_fill_color(*hex_to_rgb(PAGE_BG))
        self.rect(0, 0, self.w, self.h, "F")
        self.set_fill_color(*hex_to_rgb(PRIMARY))
        self.rect(0, 0, self.w, 14, "F")
        self.set_xy(12, 3)
        self.set_font(FONT, "B", 13)
        self.set_text_color(0, 0, 0)
        self.cell(0, 8, latin1(self.report_title))
        self.set_y(20)

    def footer(self):
        self.set_y(-12)
        self.set_font(FONT, "I", 8)
        self.set_text_color(120, 120, 120)
        self.cell(0, 8, f"Page {self.page_no()}/{{nb}}", align="C")

    # -- blocks -------------------------------------------------------------

    def section_title(self, text: str) -> None:
        self.set_font(FONT, "B", 15)
        self.set_text_color(*hex_to_rgb(BORDER_DARK))
        self.cell(0, 10, latin1(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_text_color(0, 0, 0)

    def cover(self, heading: str, store: Store) -> None:
        self.add_page()
        self.set_fill_color(*hex_to_rgb(PRIMARY))
        self.rect(0, 70, self.w, 60, "F")
        self.set_xy(12, 82)
        self.set_font(FONT, "B", 30)
        self.cell(self.w - 24, 14, latin1(heading), align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        subtitle = store.store_name or store.dealer_code
        if store.city:
            subtitle = f"{subtitle}, {store.city}"
        self.set_font(FONT, "", 16)
        self.cell(self.w - 24, 10, latin1(subtitle), align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_y(140)
        self.set_font(FONT, "", 12)
        self.cell(self.w - 24, 8, latin1(f"Store ID: {store.store_id or '-'}  |  Dealer Code: {store.dealer_code}"),
                  align="C")

    def banner(self, heading: str, subtitle: str) -> None:
        self.add_page()
        self.set_y(85)
        self.set_font(FONT, "B", 30)
        self.cell(0, 14, latin1(heading), align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_font(FONT, "", 16)
        self.cell(0, 10, latin1(subtitle), align="C")

    def details(self, title: str, rows: Sequence[Tuple[str, str]]) -> None:
        self.add_page()
        self.section_title(title)
        label_w = 60
        value_w = self.w - self.l_margin - self.r_margin - label_w
        for label, value in rows:
            self.set_font(FONT, "B", 10)
            self.set_fill_color(*hex_to_rgb(LIGHT_BG))
            self.set_draw_color(*hex_to_rgb(BORDER_DARK))
            self.cell(label_w, 8, latin1(label), border=1, fill=True)
            self.set_font(FONT, "", 10)
            self.multi_cell(value_w, 8, latin1(value or "-")[:600], border=1,
                            new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def image_box(self, reference: Optional[str], x: float, y: float, w: float, h: float,
                  label: Optional[str] = None) -> None:
        self.set_draw_color(*hex_to_rgb(BORDER_DARK))
        self.set_fill_color(*hex_to_rgb(LIGHT_BG))
        self.rect(x, y, w, h, "DF")
        image = self.loader.load(reference)
        if image is None:
            self.set_xy(x, y + h / 2 - 4)
            self.set_font(FONT, "I", 10)
            self.set_text_color(*hex_to_rgb(BORDER_DARK))
            self.cell(w, 8, "Image not available", align="C")
            self.set_text_color(0, 0, 0)
        else:
            iw, ih, dx, dy = fit_box(image.width, image.height, w - 2, h - 2)
            self.image(BytesIO(image.data), x=x + 1 + dx, y=y + 1 + dy, w=iw, h=ih)
        if label:
            self.set_xy(x, y + h + 1)
            self.set_font(FONT, "B", 10)
            self.cell(w, 6, latin1(label), align="C")

    def photo_grid(self, title: str, references: Sequence[str], per_page: int = 4) -> None:
        for start in range(0, len(references), per_page):
            self.add_page()
            self.section_title(title)
            top = self.get_y()
            cell_w = (self.w - self.l_margin - self.r_margin - 8) / 2
            cell_h = (self.h - top - 20 - 8) / 2
            for offset, reference in enumerate(references[start:start + per_page]):
                row, col = divmod(offset, 2)
                self.image_box(reference, self.l_margin + col * (cell_w + 8), top + row * (cell_h + 8), cell_w, cell_h)

    def recce_photo(self, index: int, entry: dict) -> None:
        self.add_page()
        self.section_title(f"Recce Photo {index + 1}")
        top = self.get_y()
        photo_w = 175
        photo_h = self.h - top - 20
        self.image_box(entry.get("photo"), self.l_margin, top, photo_w, photo_h)

        info_x = self.l_margin + photo_w + 8
        info_w = self.w - info_x - self.r_margin
        self.set_xy(info_x, top)
        self.set_font(FONT, "B", 12)
        self.set_text_color(*hex_to_rgb(BORDER_DARK))
        self.cell(info_w, 8, "Measurements", new_x=XPos.LEFT, new_y=YPos.NEXT)
        self.set_text_color(0, 0, 0)
        self.set_font(FONT, "B", 16)
        self.cell(info_w, 10, latin1(measurement_caption(entry)), new_x=XPos.LEFT, new_y=YPos.NEXT)
        self.ln(4)
        self.set_x(info_x)
        self.set_font(FONT, "B", 12)
        self.set_text_color(*hex_to_rgb(BORDER_DARK))
        self.cell(info_w, 8, "Elements", new_x=XPos.LEFT, new_y=YPos.NEXT)
        self.set_text_color(0, 0, 0)
        self.set_font(FONT, "", 11)
        for line in element_lines(entry) or ["None recorded"]:
            self.set_x(info_x)
            self.cell(info_w, 7, latin1(line), new_x=XPos.LEFT, new_y=YPos.NEXT)

    def comparison(self, index: int, before: Optional[str], after: Optional[str], caption: str) -> None:
        self.add_page()
        self.section_title(f"Installation - Recce Photo {index + 1}")
        top = self.get_y()
        box_w = (self.w - self.l_margin - self.r_margin - 8) / 2
        box_h = self.h - top - 40
        self.image_box(before, self.l_margin, top, box_w, box_h, label="Before (Recce)")
        self.image_box(after, self.l_margin + box_w + 8, top, box_w, box_h, label="After (Installation)")
        self.set_xy(self.l_margin, top + box_h + 9)
        self.set_font(FONT, "", 10)
        self.cell(0, 6, latin1(caption), align="C")

    def to_bytes(self) -> bytes:
        return bytes(self.output())


def _add_recce(pdf: StoreReportPDF, store: Store) -> None:
    pdf.cover("Recce Report", store)
    pdf.details("Store Details", recce_details(store))
    if store.recce_initial_photos:
        pdf.photo_grid("Initial Photos", store.recce_initial_photos)
    for index, entry in enumerate(store.recce_photos or []):
        pdf.recce_photo(index, entry)


def _add_installation(pdf: StoreReportPDF, store: Store) -> None:
    pdf.cover("Installation Report", store)
    pdf.details("Store Details", installation_details(store))
    recce_photos = store.recce_photos or []
    for index, before, after in installation_pairs(store):
        entry = recce_photos[index] if 0 <= index < len(recce_photos) else {}
        pdf.comparison(index, before, after, measurement_caption(entry))


def recce_pdf(store: Store, loader: ImageLoader) -> bytes:
    pdf = StoreReportPDF(loader, f"Recce Report - {store.store_id or store.dealer_code}")
    _add_recce(pdf, store)
    return pdf.to_bytes()


def installation_pdf(store: Store, loader: ImageLoader) -> bytes:
    pdf = StoreReportPDF(loader, f"Installation Report - {store.store_id or store.dealer_code}")
    _add_installation(pdf, store)
    return pdf.to_bytes()


def bulk_pdf(stores: Iterable[Store], kind: str, loader: ImageLoader) -> bytes:
    stores: List[Store] = list(stores)
    heading = "Recce Report" if kind == REPORT_RECCE else "Installation Report"
    pdf = StoreReportPDF(loader, heading)
    pdf.banner(heading, f"{len(stores)} stores")
    for store in stores:
        if kind == REPORT_RECCE:
            _add_recce(pdf, store)
        else:
            _add_installation(pdf, store)
    return pdf.to_bytes()
