"""
PowerPoint Reports
16:9 decks built with python-pptx.

Recce deck: cover, store details, initial photos, one slide per recce photo
with its measurements and elements.
Installation deck: cover, store details, one before/after slide per
installation photo, paired through reccePhotoIndex.
"""

from io import BytesIO
from typing import Iterable, List, Optional, Sequence, Tuple

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.shapes import MSO_SHAPE
from pptx.enum.text import PP_ALIGN
from pptx.util import Inches, Pt

from app.models.store import Store
from app.services.report_common import (
    BORDER_DARK,
    LIGHT_BG,
    PAGE_BG,
    PRIMARY,
    REPORT_RECCE,
    TEXT_DARK,
    ImageLoader,
    element_lines,
    fit_box,
    installation_details,
    installation_pairs,
    measurement_caption,
    recce_details,
)


PPTX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

SLIDE_W = 13.333
SLIDE_H = 7.5
MARGIN = 0.5
TITLE_BAR_H = 0.9


def _rgb(value: str) -> RGBColor:
    return RGBColor.from_string(value)


class DeckBuilder:
    """Thin layer over python-pptx with the report's slide layouts."""

    def __init__(self, loader: ImageLoader):
        self.loader = loader
        self.prs = Presentation()
        self.prs.slide_width = Inches(SLIDE_W)
        self.prs.slide_height = Inches(SLIDE_H)
        self._blank = self.prs.slide_layouts[6]

    # -- primitives ---------------------------------------------------------

    def _new_slide(self, title: Optional[str] = None):
        slide = self.prs.slides.add_slide(self._blank)
        fill = slide.background.fill
        fill.solid()
        fill.fore_color.rgb = _rgb(PAGE_BG)
        if title:
            bar = slide.shapes.add_shape(MSO_SHAPE.RECTANGLE, 0, 0, Inches(SLIDE_W), Inches(TITLE_BAR_H))
            bar.fill.solid()
            bar.fill.fore_color.rgb = _rgb(PRIMARY)
            bar.line.fill.background()
            self._text(slide, title, MARGIN, 0.15, SLIDE_W - 2 * MARGIN, 0.6, size=24, bold=True)
        return slide

    def _text(self, slide, text: str, left: float, top: float, width: float, height: float,
              size: int = 14, bold: bool = False, color: str = TEXT_DARK, align=PP_ALIGN.LEFT):
        box = slide.shapes.add_textbox(Inches(left), Inches(top), Inches(width), Inches(height))
        frame = box.text_frame
        frame.word_wrap = True
        for index, line in enumerate(str(text).split("\n")):
            paragraph = frame.paragraphs[0] if index == 0 else frame.add_paragraph()
            paragraph.alignment = align
            run = paragraph.add_run()
            run.text = line
            run.font.size = Pt(size)
            run.font.bold = bold
            run.font.color.rgb = _rgb(color)
        return box

    def _image(self, slide, reference: Optional[str], left: float, top: float, width: float, height: float,
               label: Optional[str] = None) -> None:
        frame = slide.shapes.add_shape(MSO_SHAPE.RECTANGLE, Inches(left), Inches(top), Inches(width), Inches(height))
        frame.fill.solid()
        frame.fill.fore_color.rgb = _rgb(LIGHT_BG)
        frame.line.color.rgb = _rgb(BORDER_DARK)

        image = self.loader.load(reference)
        if image is None:
            self._text(slide, "Image not available", left, top + height / 2 - 0.25, width, 0.5,
                       size=12, color=BORDER_DARK, align=PP_ALIGN.CENTER)
        else:
            w, h, dx, dy = fit_box(image.width, image.height, width - 0.1, height - 0.1)
            slide.shapes.add_picture(
                BytesIO(image.data), Inches(left + 0.05 + dx), Inches(top + 0.05 + dy), Inches(w), Inches(h)
            )
        if label:
            self._text(slide, label, left, top + height + 0.05, width, 0.4, size=12, bold=True,
                       align=PP_ALIGN.CENTER)

    # -- layouts ------------------------------------------------------------

    def cover(self, heading: str, store: Store) -> None:
        slide = self._new_slide()
        band = slide.shapes.add_shape(MSO_SHAPE.RECTANGLE, 0, Inches(2.4), Inches(SLIDE_W), Inches(2.4))
        band.fill.solid()
        band.fill.fore_color.rgb = _rgb(PRIMARY)
        band.line.fill.background()
        self._text(slide, heading, MARGIN, 2.6, SLIDE_W - 2 * MARGIN, 0.9, size=40, bold=True,
                   align=PP_ALIGN.CENTER)
        subtitle = store.store_name or store.dealer_code
        if store.city:
            subtitle = f"{subtitle}, {store.city}"
        self._text(slide, subtitle, MARGIN, 3.6, SLIDE_W - 2 * MARGIN, 0.6, size=22, align=PP_ALIGN.CENTER)
        self._text(slide, f"Store ID: {store.store_id or '-'}   |   Dealer Code: {store.dealer_code}",
                   MARGIN, 5.2, SLIDE_W - 2 * MARGIN, 0.5, size=16, align=PP_ALIGN.CENTER)

    def banner(self, heading: str, subtitle: str) -> None:
        slide = self._new_slide()
        self._text(slide, heading, MARGIN, 2.8, SLIDE_W - 2 * MARGIN, 1.0, size=40, bold=True,
                   align=PP_ALIGN.CENTER)
        self._text(slide, subtitle, MARGIN, 3.9, SLIDE_W - 2 * MARGIN, 0.6, size=20, align=PP_ALIGN.CENTER)

    def details(self, title: str, rows: Sequence[Tuple[str, str]]) -> None:
        slide = self._new_slide(title)
        top = TITLE_BAR_H + 0.3
        height = min(0.45 * len(rows), SLIDE_H - top - MARGIN)
        shape = slide.shapes.add_table(len(rows), 2, Inches(MARGIN), Inches(top),
                                       Inches(SLIDE_W - 2 * MARGIN), Inches(height))
        table = shape.table
        table.columns[0].width = Inches(3.0)
        table.columns[1].width = Inches(SLIDE_W - 2 * MARGIN - 3.0)
        for row_index, (label, value) in enumerate(rows):
            for col_index, text in enumerate((label, value)):
                cell = table.cell(row_index, col_index)
                cell.text = str(text)[:400]
                cell.fill.solid()
                cell.fill.fore_color.rgb = _rgb(LIGHT_BG if col_index == 0 else PAGE_BG)
                for paragraph in cell.text_frame.paragraphs:
                    paragraph.font.size = Pt(12)
                    paragraph.font.bold = col_index == 0
                    paragraph.font.color.rgb = _rgb(TEXT_DARK)

    def photo_grid(self, title: str, references: Sequence[str], per_slide: int = 4) -> None:
        for start in range(0, len(references), per_slide):
            chunk = references[start:start + per_slide]
            slide = self._new_slide(title)
            cols = 2
            cell_w = (SLIDE_W - 2 * MARGIN - 0.4) / cols
            cell_h = (SLIDE_H - TITLE_BAR_H - 2 * MARGIN - 0.4) / 2
            for offset, reference in enumerate(chunk):
                row, col = divmod(offset, cols)
                self._image(slide, reference,
                            MARGIN + col * (cell_w + 0.4),
                            TITLE_BAR_H + MARGIN + row * (cell_h + 0.4),
                            cell_w, cell_h)

    def recce_photo(self, index: int, entry: dict) -> None:
        slide = self._new_slide(f"Recce Photo {index + 1}")
        photo_w = 8.2
        photo_h = SLIDE_H - TITLE_BAR_H - 2 * MARGIN
        self._image(slide, entry.get("photo"), MARGIN, TITLE_BAR_H + MARGIN, photo_w, photo_h)

        info_left = MARGIN + photo_w + 0.4
        info_w = SLIDE_W - info_left - MARGIN
        self._text(slide, "Measurements", info_left, TITLE_BAR_H + MARGIN, info_w, 0.5, size=18, bold=True,
                   color=BORDER_DARK)
        self._text(slide, measurement_caption(entry), info_left, TITLE_BAR_H + MARGIN + 0.5, info_w, 0.6, size=22,
                   bold=True)
        lines = element_lines(entry)
        self._text(slide, "Elements", info_left, TITLE_BAR_H + MARGIN + 1.4, info_w, 0.5, size=18, bold=True,
                   color=BORDER_DARK)
        self._text(slide, "\n".join(lines) if lines else "None recorded", info_left,
                   TITLE_BAR_H + MARGIN + 1.9, info_w, 3.5, size=14)

    def comparison(self, index: int, before: Optional[str], after: Optional[str], caption: str) -> None:
        slide = self._new_slide(f"Installation - Recce Photo {index + 1}")
        box_w = (SLIDE_W - 2 * MARGIN - 0.4) / 2
        box_h = SLIDE_H - TITLE_BAR_H - 2 * MARGIN - 0.9
        top = TITLE_BAR_H + MARGIN
        self._image(slide, before, MARGIN, top, box_w, box_h, label="Before (Recce)")
        self._image(slide, after, MARGIN + box_w + 0.4, top, box_w, box_h, label="After (Installation)")
        self._text(slide, caption, MARGIN, SLIDE_H - MARGIN - 0.3, SLIDE_W - 2 * MARGIN, 0.4, size=12,
                   align=PP_ALIGN.CENTER)

    def to_bytes(self) -> bytes:
        buffer = BytesIO()
        self.prs.save(buffer)
        return buffer.getvalue()


def _add_recce(deck: DeckBuilder, store: Store) -> None:
    deck.cover("Recce Report", store)
    deck.details("Store Details", recce_details(store))
    if store.recce_initial_photos:
        deck.photo_grid("Initial Photos", store.recce_initial_photos)
    for index, entry in enumerate(store.recce_photos or []):
        deck.recce_photo(index, entry)


def _add_installation(deck: DeckBuilder, store: Store) -> None:
    deck.cover("Installation Report", store)
    deck.details("Store Details", installation_details(store))
    recce_photos = store.recce_photos or []
    for index, before, after in installation_pairs(store):
        entry = recce_photos[index] if 0 <= index < len(recce_photos) else {}
        deck.comparison(index, before, after, measurement_caption(entry))


def recce_deck(store: Store, loader: ImageLoader) -> bytes:
    deck = DeckBuilder(loader)
    _add_recce(deck, store)
    return deck.to_bytes()


def installation_deck(store: Store, loader: ImageLoader) -> bytes:
    deck = DeckBuilder(loader)
    _add_installation(deck, store)
    return deck.to_bytes()


def bulk_deck(stores: Iterable[Store], kind: str, loader: ImageLoader) -> bytes:
    """One deck covering every store, each section built like the single-store deck."""
    deck = DeckBuilder(loader)
    stores: List[Store] = list(stores)
    heading = "Recce Report" if kind == REPORT_RECCE else "Installation Report"
    deck.banner(heading, f"{len(stores)} stores")
    for store in stores:
        if kind == REPORT_RECCE:
            _add_recce(deck, store)
        else:
            _add_installation(deck, store)
    return deck.to_bytes()
