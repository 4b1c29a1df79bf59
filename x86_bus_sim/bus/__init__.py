"""Bus transactions, fetch cycle and operand access."""
