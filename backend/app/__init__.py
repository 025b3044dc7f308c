"""SciCalc HTTP backend."""
