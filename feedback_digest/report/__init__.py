from .assembler import assemble_report, category_color, format_text

__all__ = ["assemble_report", "category_color", "format_text"]
