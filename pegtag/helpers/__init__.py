from .alternating import AlternatingList
