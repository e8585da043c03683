from .config_io import dump_layer_config, load_layer_config, load_layer_configs

__all__ = ["dump_layer_config", "load_layer_config", "load_layer_configs"]
