"""Figma Export - поэтапный экспорт документа Figma и реорганизация результата."""
