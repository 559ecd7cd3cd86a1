"""GraphQL documents sent to the Cantabular extended API."""

QUERY_STATIC_DATASET = """
query($dataset: String!, $variables: [String!]!, $filters: [Filter!]) {
	dataset(name: $dataset) {
		table(variables: $variables, filters: $filters) {
			dimensions {
				count
				variable { name label }
				categories { code label }
			}
			values
			error
		}
	}
}"""

# Same as QUERY_STATIC_DATASET but without counts.
QUERY_DIMENSION_OPTIONS = """
query($dataset: String!, $variables: [String!]!, $filters: [Filter!]) {
	dataset(name: $dataset) {
		table(variables: $variables, filters: $filters) {
			dimensions {
				variable { name label }
				categories { code label }
			}
			error
		}
	}
}"""

QUERY_STATIC_DATASET_TYPE = """
query($dataset: String!) {
	dataset(name: $dataset) {
		type
	}
}"""

QUERY_LIST_DATASETS = """
query {
	datasets {
		name
	}
}"""

QUERY_DIMENSIONS = """
query($dataset: String!) {
	dataset(name: $dataset) {
		variables {
			edges {
				node {
					name
					label
					description
					mapFrom {
						edges {
							node {
								name
								label
							}
						}
					}
					categories {
						totalCount
					}
				}
			}
		}
	}
}"""

QUERY_GEOGRAPHY_DIMENSIONS = """
query($dataset: String!) {
	dataset(name: $dataset) {
		ruleBase {
			isSourceOf {
				edges {
					node {
						name
						label
						description
						mapFrom {
							edges {
								node {
									name
									label
								}
							}
						}
						categories {
							totalCount
						}
					}
				}
			}
			name
		}
	}
}"""

QUERY_DIMENSIONS_BY_NAME = """
query($dataset: String!, $variables: [String!]!) {
	dataset(name: $dataset) {
		variables(names: $variables) {
			edges {
				node {
					name
					label
					description
					mapFrom {
						edges {
							node {
								name
								label
							}
						}
					}
					categories {
						totalCount
					}
				}
			}
		}
	}
}"""

__all__ = [
    "QUERY_DIMENSIONS",
    "QUERY_DIMENSIONS_BY_NAME",
    "QUERY_DIMENSION_OPTIONS",
    "QUERY_GEOGRAPHY_DIMENSIONS",
    "QUERY_LIST_DATASETS",
    "QUERY_STATIC_DATASET",
    "QUERY_STATIC_DATASET_TYPE",
]
