"""Response interpretation core: extraction, dispatch and assembly."""
