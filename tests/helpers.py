from typing import List

import fitz


def build_pdf(pages: List[str]) -> bytes:
    """PDF with one page per entry, each carrying the given text layer (empty means a blank page)."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


def good_text(length: int) -> str:
    """Clean, non-repetitive text with identifiers, amounts and dates."""
    lines = [
        "CPF 123.456.789-09 do comprador identificado neste instrumento.",
        "Valor total de R$ 1.500,00 pago nesta data pelo comprador.",
        "Lavrado em 12 de março de 2020 na cidade de Campinas.",
        "Certifico que este documento confere com seu original.",
    ]
    i = 0
    while sum(len(ln) + 1 for ln in lines) < length:
        lines.append(
            f"Paragrafo {1000 + i} descreve clausulas contratuais distintas entre vendedor comprador"
        )
        i += 1
    return "\n".join(lines)[:length]
