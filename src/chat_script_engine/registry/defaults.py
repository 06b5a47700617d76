from chat_script_engine.registry.components import ComponentRegistry

# type key -> (renderable, default params). Renderables are the names the
# rendering layer resolves to its own widgets.
DEFAULT_COMPONENTS: dict[str, tuple[str, dict]] = {
    "job-selector": ("JobSelector", {"multiple": False}),
    "candidate-selector": ("CandidateSelector", {"multiple": True}),
    "job-input": ("JobInput", {"readonly": False}),
    "candidate-input": ("CandidateInput", {}),
    "input-method-selector": ("InputMethodSelector", {"multiple": False}),
    "source-table": ("SourceTable", {"pageSize": 10}),
    "upload-handler": ("UploadHandler", {"accept": ".pdf,.doc,.docx,.txt"}),
    "candidate-form-preview": ("CandidateFormPreview", {"editable": True}),
}


def register_default_components(registry: ComponentRegistry) -> ComponentRegistry:
    """Registers the built-in chat fragments once per registry.

    Later calls on an initialized registry are no-ops, so keys overridden by
    the host application after startup are left alone.
    """
    if registry.initialized:
        return registry
    for type_key, (renderable, params) in DEFAULT_COMPONENTS.items():
        registry.register(type_key, renderable, dict(params))
    registry.mark_initialized()
    return registry
