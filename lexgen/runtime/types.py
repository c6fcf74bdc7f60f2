"""Domain string types referenced by generated models."""

from typing import NewType

# Format: did:{method}:{identifier}, e.g. did:plc:z72i7hdynmk6r22z27h6tvur
Did = NewType("Did", str)

# Format: at://{authority}/{collection}/{rkey}
AtUri = NewType("AtUri", str)

__all__ = ["Did", "AtUri"]
