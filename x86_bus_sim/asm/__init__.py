"""Program parser, shape classifier and mini-assembler."""
