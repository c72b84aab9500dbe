from photo_enhancer.graph.state import EnhancementGraphState

__all__ = ["EnhancementGraphState"]
