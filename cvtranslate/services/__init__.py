"""Services - the text-completion boundary and CV extraction."""
